"""
Services talking to the learning backend and tracking study progress
"""
