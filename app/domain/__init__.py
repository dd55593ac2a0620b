"""
Capa de Dominio - Reservas de clases de manejo.

Esta capa contiene la lógica de negocio pura, sin dependencias de frameworks.

Estructura:
- entities/: Entidades del dominio (Reservation, PaymentOrder, slots, outbox)
- value_objects/: Objetos de valor inmutables (Money, TimeRange, MerchantReference, Holder)
- policy.py: Reglas de tiempo (TTL de holds, ventana de llamada, expiración de tokens)
- errors.py: Excepciones específicas del dominio
"""
