import streamlit as st

# === COLOR PALETTE ===
PRIMARY_COLOR    = "#667eea"
SECONDARY_COLOR  = "#764ba2"
SUCCESS_COLOR    = "#10b981"
WARNING_COLOR    = "#f59e0b"
DANGER_COLOR     = "#ef4444"
TEXT_COLOR       = "#2c3e50"
SUBTLE_TEXT      = "#495057"
GRID_COLOR       = "#e5e7eb"
BACKGROUND_COLOR = "#f8f9fa"
CARD_BG_LIGHT    = "#ffffff"

# Seat tile colors by booking state
SEAT_FREE_COLOR    = SUCCESS_COLOR
SEAT_PARTIAL_COLOR = WARNING_COLOR
SEAT_FULL_COLOR    = DANGER_COLOR


def apply_css():
    """Global styles for the header, status banners and seat tiles."""
    st.markdown(f"""
        <style>
        .main {{
            background-color: {BACKGROUND_COLOR};
            color: {TEXT_COLOR};
            font-family: 'Segoe UI','Inter','SF Pro Display',sans-serif;
        }}
        .main-header {{
            background: linear-gradient(135deg, {PRIMARY_COLOR} 0%, {SECONDARY_COLOR} 100%);
            padding: 1.5rem 2rem; border-radius: 16px; margin-bottom: 1.5rem;
            box-shadow: 0 8px 32px rgba(102,126,234,.3);
        }}
        .status-banner {{
            padding: .6rem 1rem; border-radius: 10px; margin-bottom: 1rem;
            font-weight: 600; color: white;
        }}
        .seat-tile {{
            border-radius: 10px; padding: .5rem; text-align: center;
            color: white; font-weight: 700; margin-bottom: .4rem;
        }}
        </style>
    """, unsafe_allow_html=True)
