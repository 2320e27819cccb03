"""Provider clients, persistence and the purchase pipeline."""
