"""
Core module for the course materials service.

Identity, chunking, embeddings and vector store access used by the services.
"""
