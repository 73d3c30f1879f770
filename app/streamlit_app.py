"""Streamlit creator studio for Koloni content generation.

Features:
- Emu and LongCat generation charged against the token ledger
- Instagram and YouTube export formatting
- Recent generation history (last 20)
- Token balance and transaction charts
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st
from dotenv import load_dotenv

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from koloni.client import new_user_id
from koloni.dispatch import ExportDispatcher, GenerationDispatcher, format_cost, parse_format
from koloni.errors import GenerationBackendError, InsufficientBalance, KoloniError
from koloni.handlers import get_services
from koloni.models import FORMAT_CONFIG, ContentFormat, GenerationHistory, GenerationRequest, HistoryEntry
from koloni.providers import get_provider

load_dotenv()
logging.basicConfig(level=logging.INFO)

st.set_page_config(
    page_title="Koloni Creator Studio",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ============================================================================
# Session state initialization
# ============================================================================


def init_session_state():
    defaults = {
        "user_id": new_user_id(),
        "history": GenerationHistory(),
        "last_content": "",
    }
    for key, val in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = val


init_session_state()

services = get_services()
ledger = services.ledger
exporter = ExportDispatcher()

# ============================================================================
# Sidebar
# ============================================================================

with st.sidebar:
    st.markdown("### Account")
    user_id = st.text_input("User ID", value=st.session_state["user_id"])
    st.session_state["user_id"] = user_id

    report = ledger.report(user_id) if user_id else {"balance": 0, "transactions": []}
    st.metric("Token Balance", report["balance"])

    st.divider()
    st.markdown("##### Provider")
    provider_name = st.selectbox(
        "Text Provider",
        options=["openai", "gemini"],
        index=0 if services.settings.provider != "gemini" else 1,
    )
    api_key = st.text_input(
        "API Key",
        value="",
        type="password",
        help="Optional: leave blank to use the key from your environment/.env.",
    )

    st.divider()
    st.markdown("##### Costs")
    for fmt in ContentFormat:
        st.caption(f"{fmt.value.title()}: {format_cost(fmt)} tokens")

# ============================================================================
# Main area — Tabs
# ============================================================================

st.title("Koloni Creator Studio")

tab_generate, tab_export, tab_history, tab_ledger = st.tabs([
    "Generate",
    "Export",
    "History",
    "Ledger",
])

with tab_generate:
    st.header("Generate Content")

    content_format = parse_format(st.radio(
        "Format",
        options=[f.value for f in ContentFormat],
        horizontal=True,
        format_func=lambda x: x.title(),
    ))
    defaults = FORMAT_CONFIG[content_format.value]["options"]

    with st.form("generate_form"):
        prompt = st.text_area("Prompt", placeholder="What should the piece be about?")
        option_cols = st.columns(len(defaults))
        options = {}
        for col, (key, default) in zip(option_cols, defaults.items()):
            with col:
                options[key] = st.text_input(key.title(), value=default)
        submitted = st.form_submit_button(
            f"Generate ({format_cost(content_format)} tokens)", type="primary"
        )

    if submitted:
        try:
            model_key = "gemini_model" if provider_name == "gemini" else "openai_model"
            provider = get_provider(
                provider_name,
                api_key=api_key or None,
                model=getattr(services.settings, model_key),
                timeout=services.settings.backend_timeout_s,
            )
        except ValueError as e:
            st.error(str(e))
        else:
            dispatcher = GenerationDispatcher(ledger, provider)
            with st.spinner("Generating..."):
                try:
                    result = dispatcher.generate(GenerationRequest(
                        format=content_format.value,
                        prompt=prompt,
                        user_id=user_id,
                        options=options,
                    ))
                except InsufficientBalance as e:
                    st.error(f"Insufficient tokens: balance {e.balance}, needs {e.required}.")
                except GenerationBackendError as e:
                    st.error(f"Generation failed: {e.details}")
                except KoloniError as e:
                    st.error(e.message)
                else:
                    st.session_state["last_content"] = result.content
                    st.session_state["history"].add(HistoryEntry(
                        format=content_format.value,
                        prompt=prompt,
                        content=result.content,
                    ))
                    if not result.charged:
                        st.warning("Content generated but tokens could not be deducted.")
                    st.success(f"Generated in {result.generation_time_s:.1f}s")
                    st.markdown(result.content)

with tab_export:
    st.header("Export")

    platform = st.radio("Platform", options=["instagram", "youtube"], horizontal=True)
    export_text = st.text_area(
        "Content",
        value=st.session_state["last_content"],
        height=240,
    )

    if st.button("Format for export", type="primary", disabled=not export_text):
        try:
            exported = exporter.export(platform, export_text)
        except KoloniError as e:
            st.error(e.message)
        else:
            if platform == "instagram":
                st.code(exported["content"], language=None)
                st.caption(
                    f"{exported['metadata']['captionLength']} chars, "
                    f"{exported['metadata']['hashtagCount']} hashtags"
                )
            else:
                st.text_input("Title", value=exported["title"])
                st.code(exported["description"], language=None)
                st.caption(f"Tags: {', '.join(exported['tags']) or '(none)'}")

            with st.expander("Tips"):
                for tip in exported["tips"]:
                    st.markdown(f"- {tip}")

            st.download_button(
                "Download export (JSON)",
                data=json.dumps(exported, indent=2, ensure_ascii=False),
                file_name=f"{platform}_export.json",
                mime="application/json",
            )

with tab_history:
    st.header("Recent Generations")

    history: GenerationHistory = st.session_state["history"]
    if not len(history):
        st.info("Generate some content to build history.")
    else:
        for i, entry in enumerate(history.entries):
            with st.expander(f"{entry.format} | {entry.timestamp}", expanded=(i == 0)):
                st.markdown(f"**Prompt:** {entry.prompt}")
                st.markdown(entry.content)
                if st.button("Send to export", key=f"export_hist_{i}"):
                    st.session_state["last_content"] = entry.content
                    st.rerun()

with tab_ledger:
    st.header("Token Ledger")

    transactions = report["transactions"]
    if not transactions:
        st.info("No transactions yet.")
    else:
        df = pd.DataFrame(transactions)
        st.dataframe(df, use_container_width=True, hide_index=True)

        fig = px.line(
            df, x="timestamp", y="balanceAfter",
            markers=True,
            title="Balance after each transaction (last 10)",
            labels={"balanceAfter": "Balance", "timestamp": "Time"},
        )
        fig.update_layout(height=350, margin=dict(t=40, b=20, l=20, r=20))
        st.plotly_chart(fig, use_container_width=True)

        totals = df.groupby("type")["amount"].sum().reset_index()
        fig = px.bar(totals, x="type", y="amount", color="type", title="Tokens added vs spent")
        fig.update_layout(height=300, margin=dict(t=40, b=20, l=20, r=20))
        st.plotly_chart(fig, use_container_width=True)
