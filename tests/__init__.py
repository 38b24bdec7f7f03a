"""
Test suite for the RAG storage adapters.
"""
