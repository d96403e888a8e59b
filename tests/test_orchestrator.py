"""End-to-end tests for the chat pipeline and ledger flow (mocked endpoint)."""

import json
from decimal import Decimal

import pytest

from conftest import TODAY, FlakyStore, RecordingTransport, completion, image_bytes, model_json

from smartbill.agents.prompts import APOLOGY, API_KEY_GUIDE
from smartbill.config import Settings
from smartbill.ledger import InvalidAmountError, TransactionNotFoundError
from smartbill.models.conversation import MessageRole
from smartbill.models.transaction import Category
from smartbill.orchestrator import create_app_components
from smartbill.services.image import CaptureCountdown
from smartbill.services.storage import InMemoryStore, StorageKeys


def build_app(transport, seed=False, api_key="sk-test", store=None):
    if store is None:
        store = InMemoryStore()
    if not seed and store.get(StorageKeys.TRANSACTIONS) is None:
        store.set(StorageKeys.TRANSACTIONS, "[]")
    if api_key:
        store.set(StorageKeys.API_KEY, api_key)
    return create_app_components(
        store=store,
        settings=Settings(),
        client=transport.client(),
        today=lambda: TODAY,
    )


def system_prompt(transport, index=-1) -> str:
    return transport.body(index)["messages"][0]["content"]


def event_types(app) -> list[str]:
    return [e["event_type"] for e in app.audit_logger.recent_events()]


class TestChatTurns:
    """The main chat scenarios."""

    @pytest.mark.asyncio
    async def test_lunch_expense(self):
        """Test '午饭35' adds one FOOD entry and notifies."""
        transport = RecordingTransport(completion(model_json(
            "35块的午饭，吃得不错嘛", [{"amount": 35, "category": "餐饮", "merchant": "午饭", "date": "2024-05-15"}],
        )))
        app = build_app(transport)

        turn = await app.chat.submit_text("午饭35")

        assert turn.notification == "已添加 1 笔记录"
        assert turn.reply.text == "35块的午饭，吃得不错嘛"
        assert turn.reply.mood_tag == "开心"
        assert [(t.amount, t.category) for t in app.ledger.transactions] == [(Decimal("35.00"), Category.FOOD)]
        assert [m.role for m in app.history.messages] == [MessageRole.ASSISTANT, MessageRole.USER, MessageRole.ASSISTANT]
        assert app.history.messages[-1].extracted_transactions[0]["amount"] == 35
        assert "transactions_added" in event_types(app)

    @pytest.mark.asyncio
    async def test_salary_income(self):
        """Test an income candidate lands in INCOME and counts as income."""
        transport = RecordingTransport(completion(model_json(
            "发工资啦！", [{"amount": 8000, "category": "工资", "merchant": "公司", "is_income": True}],
        )))
        app = build_app(transport)

        await app.chat.submit_text("发工资了8000")

        txn = app.ledger.transactions[0]
        assert txn.category == Category.INCOME
        assert txn.date == TODAY
        assert app.chat.context().month_income == Decimal("8000")
        assert app.chat.context().month_expense == 0

    @pytest.mark.asyncio
    async def test_unreadable_amount_adds_nothing(self):
        """Test a candidate with amount 'abc' never reaches the ledger."""
        transport = RecordingTransport(completion(model_json(
            "记下了", [{"amount": "abc", "category": "其他", "merchant": "x", "date": "2024-01-01"}],
        )))
        app = build_app(transport)

        turn = await app.chat.submit_text("随便买了点东西")

        assert turn.added == []
        assert turn.notification == ""
        assert turn.reply.text == "记下了"
        assert len(app.ledger) == 0
        assert "candidates_dropped" in event_types(app)

    @pytest.mark.asyncio
    async def test_missing_credential(self):
        """Test no key gives the setup guide and no request."""
        transport = RecordingTransport(completion(model_json()))
        app = build_app(transport, api_key=None)

        turn = await app.chat.submit_text("午饭35")

        assert turn.reply.text == API_KEY_GUIDE
        assert turn.reply.mood_tag == "等待配置"
        assert transport.requests == []
        assert len(app.ledger) == 0
        assert "model_fallback" in event_types(app)

    @pytest.mark.asyncio
    async def test_over_budget_context(self):
        """Test the model is told when the budget is exceeded."""
        transport = RecordingTransport(completion(model_json("你超支了")))
        app = build_app(transport)
        app.ledger_flow.add_manual(3300, "购物", "商场")

        await app.chat.submit_text("我还能花多少？")

        prompt = system_prompt(transport)
        assert "剩余可用: ¥-300" in prompt
        assert "预算使用进度: 110%" in prompt

    @pytest.mark.asyncio
    async def test_pending_seed_excluded(self):
        """Test demo entries are shown as pending but not counted."""
        transport = RecordingTransport(completion(model_json()))
        app = build_app(transport, seed=True)

        await app.chat.submit_text("这个月花了多少？")

        prompt = system_prompt(transport)
        assert "本月已消费: ¥0" in prompt
        assert "待确认记录: 2 笔" in prompt
        assert "瑞幸咖啡 | 餐饮 | ¥45 (待确认)" in prompt

    @pytest.mark.asyncio
    async def test_confirming_seed_counts_next_turn(self):
        """Test a confirmed entry shows up in the following context."""
        transport = RecordingTransport(completion(model_json()))
        app = build_app(transport, seed=True)
        app.ledger_flow.confirm(app.ledger.pending()[-1].id)

        await app.chat.submit_text("这个月花了多少？")

        assert "本月已消费: ¥45" in system_prompt(transport)

    @pytest.mark.asyncio
    async def test_history_window_precedes_user_turn(self):
        """Test the request holds prior turns then the new input once."""
        transport = RecordingTransport(completion(model_json("第一条")), completion(model_json("第二条")))
        app = build_app(transport)

        await app.chat.submit_text("你好")
        await app.chat.submit_text("午饭35")

        messages = transport.body()["messages"]
        assert [m["role"] for m in messages] == ["system", "assistant", "user", "assistant", "user"]
        assert messages[2]["content"] == "你好"
        assert messages[3]["content"] == "第一条"
        assert messages[-1]["content"] == "午饭35"

    @pytest.mark.asyncio
    async def test_blank_text_ignored(self):
        """Test whitespace-only input does nothing."""
        transport = RecordingTransport(completion(model_json()))
        app = build_app(transport)

        assert await app.chat.submit_text("   ") is None
        assert len(app.history) == 1
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_server_failure_reply(self):
        """Test a provider error is shown as the reply."""
        transport = RecordingTransport(completion("", status_code=500))
        app = build_app(transport)

        turn = await app.chat.submit_text("午饭35")

        assert turn.reply.text.startswith("AI服务暂时不可用: ")
        assert turn.reply.mood_color == "#ff6b6b"
        assert len(app.ledger) == 0
        assert "external_service_error" in event_types(app)

    @pytest.mark.asyncio
    async def test_transcript_persisted(self):
        """Test the conversation survives a restart."""
        store = InMemoryStore()
        transport = RecordingTransport(completion(model_json("好的")))
        app = build_app(transport, store=store)
        await app.chat.submit_text("午饭35")

        reopened = build_app(transport, store=store)
        assert [m.text for m in reopened.history.messages][-2:] == ["午饭35", "好的"]


class TestStorageFailures:
    """Turns that cannot be saved still get a reply and leave no partial state."""

    THREE_ENTRIES = [
        {"amount": 35, "category": "餐饮", "merchant": "午饭"},
        {"amount": 12, "category": "交通", "merchant": "地铁"},
        {"amount": 60, "category": "购物", "merchant": "超市"},
    ]

    @pytest.mark.asyncio
    async def test_ledger_write_failure(self):
        """Test a batch that cannot be saved adds nothing and apologizes."""
        store = FlakyStore()
        transport = RecordingTransport(completion(model_json("记好了", self.THREE_ENTRIES)))
        app = build_app(transport, store=store)
        stored = store.get(StorageKeys.TRANSACTIONS)
        store.failing = {StorageKeys.TRANSACTIONS}

        turn = await app.chat.submit_text("午饭35 地铁12 超市60")

        assert turn.reply.text == APOLOGY
        assert turn.added == []
        assert turn.notification == ""
        assert app.ledger.transactions == ()
        assert store.get(StorageKeys.TRANSACTIONS) == stored
        assert app.chat.context().month_expense == 0
        assert "system_error" in event_types(app)

    @pytest.mark.asyncio
    async def test_history_matches_store_after_ledger_failure(self):
        """Test the transcript in memory is the one that was saved."""
        store = FlakyStore()
        transport = RecordingTransport(completion(model_json("记好了", self.THREE_ENTRIES)))
        app = build_app(transport, store=store)
        store.failing = {StorageKeys.TRANSACTIONS}

        await app.chat.submit_text("午饭35 地铁12 超市60")

        reopened = build_app(transport, store=store)
        assert [(m.role, m.text) for m in reopened.history.messages] == [
            (m.role, m.text) for m in app.history.messages
        ]
        assert [m.text for m in app.history.messages][-2:] == ["午饭35 地铁12 超市60", APOLOGY]

    @pytest.mark.asyncio
    async def test_all_writes_failing(self):
        """Test nothing is kept in memory when nothing can be saved."""
        store = FlakyStore()
        transport = RecordingTransport(completion(model_json("记好了", self.THREE_ENTRIES)))
        app = build_app(transport, store=store)
        before = app.history.messages
        stored_history = store.get(StorageKeys.CONVERSATION_HISTORY)
        store.failing = True

        turn = await app.chat.submit_text("午饭35")

        assert turn.reply.text == APOLOGY
        assert app.history.messages == before
        assert store.get(StorageKeys.CONVERSATION_HISTORY) == stored_history
        assert app.ledger.transactions == ()
        assert transport.requests == []


class TestMediaTurns:
    """Image, audio and live capture submissions."""

    @pytest.mark.asyncio
    async def test_image_turn(self):
        """Test a photo is embedded and the transcript shows a placeholder."""
        transport = RecordingTransport(completion(model_json(
            "小票识别好了", [{"amount": "58.5", "category": "餐饮", "merchant": "麦当劳"}],
        )))
        app = build_app(transport)

        turn = await app.chat.submit_image(image_bytes(), "image/png")

        parts = transport.body()["messages"][-1]["content"]
        assert parts[0]["image_url"]["url"].startswith("data:image/png;base64,")
        assert "# 图片分析任务" in system_prompt(transport)
        assert app.history.messages[-2].text == "[图片]"
        assert turn.added[0].amount == Decimal("58.50")

    @pytest.mark.asyncio
    async def test_audio_turn(self):
        """Test a voice clip is embedded as input_audio."""
        transport = RecordingTransport(completion(model_json("听到了")))
        app = build_app(transport)

        await app.chat.submit_audio(b"RIFF....WAVE", "audio/wav")

        parts = transport.body()["messages"][-1]["content"]
        assert parts[0]["type"] == "input_audio"
        assert parts[0]["input_audio"]["format"] == "wav"
        assert app.history.messages[-2].text == "[语音]"

    @pytest.mark.asyncio
    async def test_unreadable_image_apologises(self):
        """Test a failure inside the turn still produces a reply."""
        transport = RecordingTransport(completion(model_json()))
        app = build_app(transport)

        turn = await app.chat.submit_image(b"not an image")

        assert turn.reply.text == APOLOGY
        assert turn.reply.mood_tag == "沮丧"
        assert app.history.messages[-1].text == APOLOGY
        assert transport.requests == []
        assert "system_error" in event_types(app)

    @pytest.mark.asyncio
    async def test_cancelled_capture(self):
        """Test closing the camera before the countdown sends nothing."""
        transport = RecordingTransport(completion(model_json()))
        app = build_app(transport)
        countdown = CaptureCountdown(duration=1.0)
        countdown.cancel()
        grabbed = []

        result = await app.chat.submit_capture(countdown, lambda: grabbed.append(1) or b"")

        assert result is None
        assert grabbed == []
        assert transport.requests == []
        assert "capture_cancelled" in event_types(app)

    @pytest.mark.asyncio
    async def test_completed_capture_sends_frame(self):
        """Test the frame is grabbed and sent once the countdown fires."""
        transport = RecordingTransport(completion(model_json("拍到了")))
        app = build_app(transport)

        turn = await app.chat.submit_capture(CaptureCountdown(duration=0.01, step=0.005), lambda: image_bytes(fmt="JPEG"))

        assert turn.reply.text == "拍到了"
        assert len(transport.requests) == 1


class TestLedgerFlow:
    """Manual ledger actions."""

    def test_manual_expense(self):
        """Test a manual entry and its notification."""
        app = build_app(RecordingTransport(completion(model_json())))
        txn, notification = app.ledger_flow.add_manual("20", "交通", "地铁")
        assert notification == "支出记好了！"
        assert txn.category == Category.TRANSPORT
        assert "transaction_added_manually" in event_types(app)

    def test_manual_income(self):
        """Test the income notification."""
        app = build_app(RecordingTransport(completion(model_json())))
        _, notification = app.ledger_flow.add_manual(500, "其他", is_income=True)
        assert notification == "收入记好了！"

    def test_manual_invalid_amount(self):
        """Test invalid amounts propagate to the surface."""
        app = build_app(RecordingTransport(completion(model_json())))
        with pytest.raises(InvalidAmountError):
            app.ledger_flow.add_manual("abc", "餐饮")

    def test_delete_and_missing(self):
        """Test delete, then deleting again."""
        app = build_app(RecordingTransport(completion(model_json())), seed=True)
        txn_id = app.ledger.transactions[0].id
        app.ledger_flow.delete(txn_id)
        with pytest.raises(TransactionNotFoundError):
            app.ledger_flow.delete(txn_id)
        assert "transaction_deleted" in event_types(app)

    def test_budget_update(self):
        """Test the budget change feeds the next context."""
        app = build_app(RecordingTransport(completion(model_json())))
        app.ledger_flow.set_monthly_budget(5000)
        assert app.chat.context().monthly_budget == Decimal("5000")
        event = app.audit_logger.recent_events()[0]
        assert event["details"] == {"old": 3000, "new": 5000}

    @pytest.mark.asyncio
    async def test_api_key_set_after_guide(self):
        """Test storing a key turns the next turn into a real request."""
        transport = RecordingTransport(completion(model_json("终于可以干活了")))
        app = build_app(transport, api_key=None)
        await app.chat.submit_text("hi")
        app.ledger_flow.set_api_key("sk-new")

        turn = await app.chat.submit_text("hi again")

        assert turn.reply.text == "终于可以干活了"
        assert transport.requests[0].headers["Authorization"] == "Bearer sk-new"

    def test_export_matches_store(self):
        """Test the export reflects the persisted ledger."""
        store = InMemoryStore()
        app = build_app(RecordingTransport(completion(model_json())), store=store)
        app.ledger_flow.add_manual(12, "交通")
        exported = json.loads(app.ledger.export_json())
        assert exported == store.get_json(StorageKeys.TRANSACTIONS)
