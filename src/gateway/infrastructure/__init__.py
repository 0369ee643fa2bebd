from src.gateway.infrastructure.evolution_gateway import EvolutionGateway

__all__ = ["EvolutionGateway"]
