"""
HTTP surface for the segmentation engine.
"""
