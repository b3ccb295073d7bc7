"""
Módulo de Órdenes de Compra (Purchase Orders)

Una orden de compra se crea únicamente a partir de una cotización existente del
mismo vendor. Estado inicial: sent_to_pm (status_type pending).
"""
