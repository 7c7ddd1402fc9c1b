"""
DeepGuard - staged deepfake analysis for uploaded videos.
"""
__version__ = "1.0.0"
