"""Video rooms and meeting tokens (Daily.co, Agora)"""
