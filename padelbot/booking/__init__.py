# padelbot/booking/__init__.py
from .render import RenderedMessage, render_booking, welcome_text, leave_notice
