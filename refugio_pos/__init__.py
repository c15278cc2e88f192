# ==============================================================================
# REFUGIO POS - Inventario y punto de venta para un bar/restaurante
# ==============================================================================
# Insumos, kits armados desde insumos, ventas por mesa con cobro atómico,
# clientes con descuento, egresos, gastos diarios y reportes.
# ==============================================================================
