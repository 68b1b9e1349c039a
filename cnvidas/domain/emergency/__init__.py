"""Emergency consultation queue"""
