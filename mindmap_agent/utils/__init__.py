# Utilities for the mind map agent
