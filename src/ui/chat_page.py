"""NiceGUI chat interface over the document chat HTTP API."""

import os
from collections.abc import Callable
from datetime import datetime

import httpx
from nicegui import ui

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")

CUSTOM_CSS = """
<style>
    body { background: #f5f5f5; }
    .message-user { background: #4f46e5; color: white; border-radius: 18px 18px 4px 18px; }
    .message-assistant { background: #f3f4f6; color: #1f2937; border-radius: 18px 18px 18px 4px; }
    .conversation-item.active { background: #e0e7ff; font-weight: 500; }
</style>
"""


class ChatClientError(Exception):
    """The API answered with an ``{"error": ...}`` body or was unreachable."""


def _error_from(response: httpx.Response) -> ChatClientError:
    try:
        message = response.json().get("error")
    except ValueError:
        message = None
    return ChatClientError(message or f"HTTP {response.status_code}")


async def api_request(method: str, path: str, **kwargs) -> dict:
    """Call a JSON endpoint of the API and return the decoded body."""
    async with httpx.AsyncClient(base_url=API_BASE_URL, timeout=None) as client:
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise ChatClientError(f"Connection failed: {e}") from e
    if response.is_error:
        raise _error_from(response)
    return response.json()


async def stream_chat(
    message: str,
    conversation_id: str,
    on_chunk: Callable[[str], None],
) -> None:
    """Consume the plain-text answer stream from /api/chat."""
    async with httpx.AsyncClient(base_url=API_BASE_URL, timeout=None) as client:
        try:
            async with client.stream(
                "POST",
                "/api/chat",
                json={"message": message, "conversationId": conversation_id},
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise _error_from(response)
                async for text in response.aiter_text():
                    if text:
                        on_chunk(text)
        except httpx.RequestError as e:
            raise ChatClientError(f"Connection failed: {e}") from e


class ChatState:
    """Per-page chat state."""

    def __init__(self) -> None:
        self.conversation_id: str | None = None
        self.messages: list[dict] = []
        self.is_streaming: bool = False

    def add_message(self, role: str, content: str, time: str | None = None) -> None:
        self.messages.append({
            "role": role,
            "content": content,
            "time": time or datetime.now().strftime("%I:%M %p"),
        })


@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    state = ChatState()

    def render_message(msg: dict) -> None:
        is_user = msg["role"] == "user"
        align = "justify-end" if is_user else "justify-start"
        bubble = "message-user" if is_user else "message-assistant"
        with ui.row().classes(f"w-full {align}"):
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if is_user:
                        ui.label(msg["content"]).classes("text-sm whitespace-pre-wrap")
                    else:
                        ui.markdown(msg["content"]).classes("text-sm")
                ui.label(msg["time"]).classes("text-[10px] text-gray-400")

    def refresh_messages() -> None:
        messages_container.clear()
        with messages_container:
            if not state.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("description").classes("text-5xl text-gray-300")
                    ui.label("Upload documents and ask a question").classes(
                        "text-lg text-gray-400"
                    )
            for msg in state.messages:
                render_message(msg)

    async def load_conversations() -> None:
        try:
            data = await api_request("GET", "/api/conversations")
        except ChatClientError as e:
            ui.notify(str(e), type="negative")
            return

        conversation_list.clear()
        with conversation_list:
            if not data["conversations"]:
                ui.label("No conversations yet").classes("text-xs text-gray-400 p-2")
            for conv in data["conversations"]:
                active = " active" if conv["id"] == state.conversation_id else ""
                ui.label(conv["title"]).classes(
                    f"conversation-item{active} truncate cursor-pointer rounded px-3 py-2 text-sm"
                ).on("click", lambda _, cid=conv["id"]: open_conversation(cid))

    async def open_conversation(conversation_id: str) -> None:
        try:
            data = await api_request("GET", f"/api/conversations/{conversation_id}")
        except ChatClientError as e:
            ui.notify(str(e), type="negative")
            return

        state.conversation_id = conversation_id
        state.messages.clear()
        for msg in data["messages"]:
            created = datetime.fromisoformat(msg["created_at"])
            state.add_message(msg["role"], msg["message"], created.strftime("%I:%M %p"))
        refresh_messages()
        await load_conversations()

    async def load_files() -> None:
        try:
            data = await api_request("GET", "/api/files")
        except ChatClientError as e:
            ui.notify(str(e), type="negative")
            return

        file_list.clear()
        with file_list:
            for item in data["files"]:
                with ui.row().classes("w-full items-center justify-between no-wrap"):
                    size_kb = item["fileSize"] / 1024
                    ui.label(f"{item['fileName']} ({size_kb:.1f} KB)").classes(
                        "text-xs truncate"
                    )
                    ui.button(
                        icon="close",
                        on_click=lambda _, fid=item["id"]: delete_file(fid),
                    ).props("flat dense round size=sm")
        file_status.set_text(f"{data['count']} file(s)")

    async def delete_file(file_id: str) -> None:
        try:
            data = await api_request("DELETE", f"/api/files/{file_id}")
        except ChatClientError as e:
            ui.notify(f"Delete failed: {e}", type="negative")
            return
        ui.notify(f"{data['fileName']} deleted", type="positive")
        await load_files()

    async def handle_upload(e) -> None:
        name = e.file.name
        file_status.set_text(f"Uploading {name}...")
        content = await e.file.read()
        try:
            data = await api_request(
                "POST",
                "/api/upload",
                files={"file": (name, content, e.file.content_type)},
            )
        except ChatClientError as err:
            ui.notify(f"Upload failed [{name}]: {err}", type="negative")
            file_status.set_text("Upload failed")
            return
        ui.notify(f"{data['fileName']} uploaded", type="positive")
        await load_files()

    async def send_message() -> None:
        text = input_field.value.strip()
        if not text or state.is_streaming:
            return

        if state.conversation_id is None:
            try:
                created = await api_request(
                    "POST", "/api/conversations", json={"title": text[:50]}
                )
            except ChatClientError as err:
                ui.notify(f"Could not start a conversation: {err}", type="negative")
                return
            state.conversation_id = created["conversationId"]

        input_field.value = ""
        state.is_streaming = True
        send_btn.disable()
        state.add_message("user", text)
        refresh_messages()

        with messages_container:
            with ui.element("div").classes("message-assistant px-4 py-3"):
                answer_view = ui.markdown("...").classes("text-sm")

        accumulated = ""

        def on_chunk(content: str) -> None:
            nonlocal accumulated
            accumulated += content
            answer_view.set_content(accumulated)

        try:
            await stream_chat(text, state.conversation_id, on_chunk)
            state.add_message("assistant", accumulated)
        except ChatClientError as err:
            state.add_message("assistant", f"⚠️ {err}")
            ui.notify(str(err), type="negative")
        finally:
            state.is_streaming = False
            send_btn.enable()
            refresh_messages()
            await load_conversations()

    def new_chat() -> None:
        state.conversation_id = None
        state.messages.clear()
        refresh_messages()

    async def clear_conversations() -> None:
        try:
            await api_request("DELETE", "/api/conversations")
        except ChatClientError as err:
            ui.notify(str(err), type="negative")
            return
        new_chat()
        await load_conversations()
        ui.notify("All conversations deleted", type="positive")

    # === UI Layout ===
    with ui.left_drawer(value=True).classes("bg-white p-3 gap-2"):
        ui.button("New chat", icon="add", on_click=new_chat).classes("w-full")
        ui.label("Conversations").classes("text-xs text-gray-500 mt-2")
        conversation_list = ui.column().classes("w-full gap-1")
        ui.button("Clear all", icon="delete", on_click=clear_conversations).props(
            "flat dense"
        ).classes("text-xs")

        ui.separator()
        ui.label("Documents (.txt .pdf .md .csv)").classes("text-xs text-gray-500")
        ui.upload(on_upload=handle_upload, multiple=True, auto_upload=True).props(
            "accept=.txt,.pdf,.md,.csv flat bordered"
        ).classes("w-full")
        file_status = ui.label("").classes("text-xs text-gray-500")
        file_list = ui.column().classes("w-full gap-1")

    with ui.column().classes("w-full max-w-3xl mx-auto").style("height: calc(100vh - 2rem)"):
        with ui.scroll_area().classes("flex-grow w-full"):
            messages_container = ui.column().classes("w-full gap-4 p-4")
            refresh_messages()

        with ui.row().classes("w-full gap-3 items-end p-2"):
            input_field = (
                ui.textarea(placeholder="Ask about your documents...")
                .props("autogrow outlined dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = ui.button(icon="send", on_click=send_message).props("round unelevated")

    ui.timer(0.1, load_conversations, once=True)
    ui.timer(0.1, load_files, once=True)
