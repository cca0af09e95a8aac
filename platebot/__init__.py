"""
PlateBot - meal photo nutrition assistant over WhatsApp.

Structure:
- domain/: Conversation state, food and nutrient models, ports
- application/: Conversation engine and enrichment pipeline
- infrastructure/: Adapters (WhatsApp, OpenAI, USDA, in-memory stores)
- api/: FastAPI webhook router
"""

__version__ = "1.0.0"
