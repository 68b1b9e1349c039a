"""Domain packages: each one groups its router, service, repository and schemas"""
