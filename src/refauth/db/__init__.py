"""Storage layer: runtime-built tables and the transactional credential store."""
