"""
Módulo de Notas Crédito (Credit Notes)

Documento correctivo sobre una factura (invoice_id) o independiente.
Se crea en borrador; no tiene transiciones adicionales.
"""
