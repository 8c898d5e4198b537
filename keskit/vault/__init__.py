"""Vault key-store settings and iteration over Vault key listings."""