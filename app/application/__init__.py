"""
Capa de Aplicación - Reservas de clases de manejo.

Esta capa contiene los casos de uso, DTOs e interfaces (puertos).
Orquesta la lógica de negocio y define los contratos con la infraestructura.

Estructura:
- use_cases/: Disponibilidad, ciclo de vida de reservas, conciliación de pagos, barrido
- dtos/: Data Transfer Objects
- interfaces/: Puertos (contratos para adaptadores)
"""
