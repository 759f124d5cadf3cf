"""
Domain layer: entities, gateway protocols and exceptions of the retrieval core
"""
