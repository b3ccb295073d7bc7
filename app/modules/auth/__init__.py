"""
Contexto del llamador (vendor o project-manager) a partir del token JWT.
"""
