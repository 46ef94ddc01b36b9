"""
CourseCRM services
"""
