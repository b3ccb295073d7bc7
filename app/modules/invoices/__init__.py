"""
Módulo de Facturación (Invoices)

Facturas creadas por el vendor (opcionalmente desde una cotización) o generadas
por el motor de suscripciones (subscription_id).

Estados:
- draft -> sent_to_pm (vendor) -> approved_by_pm | rejected_by_pm (PM)
- approved_by_pm -> paid (vendor)
- draft -> void (vendor)
"""
