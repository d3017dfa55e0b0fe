"""
Retrieval-augmented generation engine: chunking, retrieval, fusion, rerank.
"""
