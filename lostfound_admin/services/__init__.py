"""Shared services constructed once per application"""
