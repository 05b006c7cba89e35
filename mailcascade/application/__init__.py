"""Application layer: DTOs, ports and the delivery orchestrator."""
