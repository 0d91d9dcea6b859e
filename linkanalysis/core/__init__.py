"""
Data models, graph container, storage and settings shared by every processor
"""
