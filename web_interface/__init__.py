"""Flask/Socket.IO web interface for the Block Coding Core."""
