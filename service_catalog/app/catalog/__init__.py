"""
Catalog domain: models, repositories and fake data generation.
"""
