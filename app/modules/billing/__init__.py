"""
Núcleo de documentos comerciales (billing)

Piezas compartidas por cotizaciones, órdenes de compra, facturas, notas crédito
y suscripciones:

- calculator: subtotal, CGST/SGST/IGST y total a partir de los ítems
- store: adaptador de almacenamiento particionado por vendor (owner)
- references: resolución de proyecto/cliente a partir del workspace
- identifiers: ids de documento y resolución de ids personalizados
- lifecycle: máquinas de estado y reglas de autorización por rol
- events: emisión de eventos de ciclo de vida (fire-and-forget)

Cada documento se direcciona por (owner_id, <tipo>_id).
"""
