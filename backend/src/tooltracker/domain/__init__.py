"""Domain logic for Tool Tracker, free of transport and storage details."""
