"""Adaptadores de infraestrutura (memória, Redis, Firestore, Secret Manager)."""
