"""
Módulo de Cotizaciones (Quotations)

Flujo: draft -> sent_to_pm_for_review -> po_sent_to_pm_for_review (al crear una
orden de compra) | approved | rejected (decisión del PM).

- vendor: crear, editar, enviar al PM (solo en su partición)
- project-manager: leer cotizaciones enviadas de todos los vendors, aprobar/rechazar
"""
