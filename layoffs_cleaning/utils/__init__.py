"""Utility modules for the layoffs cleaning pipeline.
"""
