"""Real-time notification broker and WebSocket transport"""
