"""Scheduled and operational services run by the worker and admin scripts"""
