"""
CourseCRM API Routes Package
"""
