"""
Infrastructure layer: runtime configuration
"""
