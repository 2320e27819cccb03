"""DomainHub control plane."""
