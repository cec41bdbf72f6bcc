"""Gavel CLI"""
