"""
CourseCRM Utility Functions
"""
