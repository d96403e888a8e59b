"""
Streamlit Frontend for SmartBill

A chat-first bookkeeping assistant. Users type, speak or photograph
what they spent and the assistant records it.

DESIGN PRINCIPLES:
1. The chat is the main surface; everything else is one click away
2. Every reply is shown, even when the model is unreachable
3. Auto-imported entries wait in a pending list until confirmed
4. Presentation only: all behavior lives in smartbill.orchestrator
"""

import asyncio
from datetime import date

import streamlit as st

from smartbill.audit import configure_logging
from smartbill.config import get_settings, validate_all_settings
from smartbill.ledger import (
    InvalidAmountError,
    TransactionNotFoundError,
    assess_budget,
    month_calendar,
    transactions_on,
)
from smartbill.models.transaction import Category
from smartbill.orchestrator import AppComponents, ChatTurn, create_app_components
from smartbill.services.auth import LoginMethod, NotLoggedInError
from smartbill.services.image import CaptureCountdown
from smartbill.validation import format_amount


# Page configuration
st.set_page_config(
    page_title="SmartBill 财伴",
    page_icon="💰",
    layout="centered",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    settings = get_settings()
    configure_logging("DEBUG" if settings.app.debug_mode else "INFO")
    return create_app_components(settings=settings)


def show_turn(turn: ChatTurn):
    if turn.notification:
        st.toast(turn.notification, icon="✅")


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 SmartBill 财伴")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "导航",
        ["💬 财伴", "📒 账本", "📊 报表", "📅 日历", "⚙️ 设置"],
        index=0,
    )

    pending = components.ledger.pending()
    if pending:
        st.sidebar.warning(f"有 {len(pending)} 笔记录待确认")

    if page == "💬 财伴":
        render_chat_page(components)
    elif page == "📒 账本":
        render_ledger_page(components)
    elif page == "📊 报表":
        render_reports_page(components)
    elif page == "📅 日历":
        render_calendar_page(components)
    elif page == "⚙️ 设置":
        render_settings_page(components)


def render_chat_page(components: AppComponents):
    """Render the conversation."""
    st.title("💬 财伴")

    for message in components.history.messages:
        with st.chat_message("user" if message.is_user else "assistant"):
            st.markdown(message.text)
            if message.mood_tag:
                color = message.mood_color or "#888888"
                st.markdown(
                    f"<span style='color:{color};font-size:0.8em'>● {message.mood_tag}</span>",
                    unsafe_allow_html=True,
                )

    with st.expander("📷 拍照 / 语音"):
        photo = st.file_uploader("上传账单照片", type=["jpg", "jpeg", "png", "webp", "heic"])
        if photo is not None and st.button("识别照片"):
            with st.spinner("看图中..."):
                show_turn(run_async(components.chat.submit_image(photo.getvalue(), photo.type)))
            st.rerun()

        frame = st.camera_input("实时拍摄")
        if frame is not None and st.button("自动识别"):
            bar = st.progress(0, text="对准账单...")
            countdown = CaptureCountdown(
                components.settings.app.capture_countdown_seconds,
                on_progress=lambda p: bar.progress(p, text="对准账单..."),
            )
            turn = run_async(components.chat.submit_capture(countdown, frame.getvalue, frame.type))
            if turn is not None:
                show_turn(turn)
            st.rerun()

        clip = st.audio_input("录一段语音")
        if clip is not None and st.button("发送语音"):
            with st.spinner("听着呢..."):
                show_turn(run_async(components.chat.submit_audio(clip.getvalue(), clip.type)))
            st.rerun()

    prompt = st.chat_input("问我：还能花多少？")
    if prompt:
        with st.spinner("思考中..."):
            turn = run_async(components.chat.submit_text(prompt))
        if turn is not None:
            show_turn(turn)
        st.rerun()


def render_ledger_page(components: AppComponents):
    """Render pending entries, recent entries and the manual entry form."""
    st.title("📒 账本")
    flow = components.ledger_flow

    pending = components.ledger.pending()
    if pending:
        st.markdown("### 待确认")
        for txn in pending:
            col1, col2, col3 = st.columns([4, 1, 1])
            col1.markdown(f"**{txn.merchant}** · {txn.category.value} · ¥{format_amount(txn.amount)} · {txn.date}")
            if col2.button("确认", key=f"confirm-{txn.id}"):
                try:
                    flow.confirm(txn.id)
                except TransactionNotFoundError as e:
                    st.error(str(e))
                st.rerun()
            if col3.button("删除", key=f"drop-{txn.id}"):
                try:
                    flow.delete(txn.id)
                except TransactionNotFoundError as e:
                    st.error(str(e))
                st.rerun()
        st.markdown("---")

    with st.form("manual_entry", clear_on_submit=True):
        st.markdown("### 手动记账")
        is_income = st.toggle("收入")
        amount = st.text_input("金额", placeholder="35")
        category = st.selectbox("分类", options=list(Category), format_func=lambda c: c.value)
        merchant = st.text_input("商户", placeholder="手动记账")
        if st.form_submit_button("记一笔", type="primary"):
            try:
                _, notice = flow.add_manual(amount, category, merchant, is_income)
                st.toast(notice, icon="✅")
            except InvalidAmountError:
                st.error("请输入有效金额")

    st.markdown("### 最近记录")
    recent = components.ledger.recent(20)
    if not recent:
        st.info("还没有任何记录。")
    for txn in recent:
        sign = "+" if txn.is_income else "-"
        flag = " (待确认)" if txn.need_confirmation else ""
        st.markdown(f"{txn.date} · {txn.merchant} · {txn.category.value} · {sign}¥{format_amount(txn.amount)}{flag}")


def render_reports_page(components: AppComponents):
    """Render the budget overview and assessment."""
    st.title("📊 财务透视")

    summary = components.chat.context()
    assessment = assess_budget(summary)

    col1, col2, col3 = st.columns(3)
    col1.metric("本月支出", f"¥{format_amount(summary.month_expense)}")
    col2.metric("剩余预算", f"¥{format_amount(summary.remaining)}")
    col3.metric("健康分", assessment.score)
    st.progress(min(summary.usage_percent, 100), text=f"预算使用 {summary.usage_percent}%")

    st.markdown(f"### {assessment.title}")
    st.markdown(assessment.message)
    for tip in assessment.tips:
        st.markdown(f"- {tip}")

    if summary.top_expense_categories:
        st.markdown("### 支出分类")
        st.bar_chart({ct.category.value: float(ct.total) for ct in summary.top_expense_categories})

    st.markdown("---")
    new_budget = st.slider(
        "月度预算",
        min_value=100,
        max_value=components.settings.app.max_monthly_budget,
        value=min(components.preferences.monthly_budget, components.settings.app.max_monthly_budget),
        step=100,
    )
    if new_budget != components.preferences.monthly_budget and st.button("保存预算"):
        components.ledger_flow.set_monthly_budget(new_budget)
        st.rerun()


def render_calendar_page(components: AppComponents):
    """Render per-day totals for a month."""
    st.title("📅 日历")
    picked = st.date_input("选择日期", value=date.today())
    days = month_calendar(components.ledger.transactions, picked.year, picked.month)

    rows = [
        {
            "日期": day.isoformat(),
            "收入": float(totals.income),
            "支出": float(totals.expense),
            "笔数": totals.count,
        }
        for day, totals in days.items()
        if totals.count
    ]
    if rows:
        st.dataframe(rows, hide_index=True)
    else:
        st.info("这个月还没有已确认的记录。")

    st.markdown(f"### {picked.isoformat()}")
    for txn in transactions_on(components.ledger.transactions, picked):
        sign = "+" if txn.is_income else "-"
        st.markdown(f"{txn.merchant} · {txn.category.value} · {sign}¥{format_amount(txn.amount)}")


def render_settings_page(components: AppComponents):
    """Render API key, status and data export."""
    st.title("⚙️ 设置")
    flow = components.ledger_flow

    st.markdown("### 千问 API Key")
    if components.preferences.has_api_key:
        st.success("✅ 已配置")
        if st.button("清除密钥"):
            flow.clear_api_key()
            st.rerun()
    else:
        st.warning("未配置，财伴暂时只能回复配置指南。")

    key = st.text_input("粘贴密钥", type="password")
    if st.button("保存密钥") and key:
        try:
            flow.set_api_key(key)
            st.rerun()
        except ValueError as e:
            st.error(str(e))

    st.markdown("---")
    st.markdown("### 配置状态")
    status = validate_all_settings()
    for name, label in (("llm", "模型接口"), ("app", "应用配置")):
        if status.get(name, False):
            st.success(f"✅ {label}")
        else:
            st.error(f"❌ {label} - {status.get(f'{name}_error', '未配置')}")

    st.markdown("---")
    st.download_button(
        "导出账单 (JSON)",
        data=components.ledger.export_json(),
        file_name="smartbill_transactions.json",
        mime="application/json",
    )

    st.markdown("---")
    render_account_section(components)

    with st.expander("🔍 操作日志"):
        for event in components.audit_logger.recent_events(50):
            st.markdown(f"`{event.get('timestamp', '')}` {event.get('description', '')}")


def render_account_section(components: AppComponents):
    """Sign in, edit the profile, or wipe local data."""
    sessions = components.sessions
    st.markdown("### 账户")

    user = sessions.current()
    if user is None:
        nickname = st.text_input("昵称")
        method = st.radio("登录方式", list(LoginMethod), format_func=lambda m: "微信" if m == LoginMethod.WECHAT else "手机号")
        phone = st.text_input("手机号") if method == LoginMethod.PHONE else None
        if st.button("登录") and nickname.strip():
            sessions.login(nickname, method, phone=phone or None)
            st.rerun()
        return

    st.markdown(f"已登录: **{user.nickname}**")
    new_nickname = st.text_input("修改昵称", value=user.nickname)
    if new_nickname.strip() and new_nickname != user.nickname and st.button("保存昵称"):
        try:
            sessions.update_profile(nickname=new_nickname.strip())
        except NotLoggedInError as e:
            st.error(str(e))
        st.rerun()

    col1, col2 = st.columns(2)
    if col1.button("退出登录"):
        sessions.logout()
        st.rerun()
    if col2.button("注销账户", type="secondary"):
        sessions.delete_account()
        st.cache_resource.clear()
        st.rerun()


if __name__ == "__main__":
    main()
