"""Localised user-facing strings: Acks, fallback notices and retry errors."""

from __future__ import annotations

import re

DEFAULT_LANGUAGE = "he"

_HEBREW_RE = re.compile(r"[\u0590-\u05FF]")

_TOOL_ACKS: dict[str, dict[str, str]] = {
    "he": {
        "create_image": "יוצר תמונה{with_provider}... 🎨",
        "create_video": "יוצר וידאו{with_provider}... 🎬",
        "image_to_video": "ממיר תמונה לווידאו מונפש{with_provider}... 🎞️",
        "edit_image": "עורך תמונה{with_provider}... ✏️",
        "edit_video": "עורך וידאו{with_provider}... 🎞️",
        "create_music": "יוצר מוזיקה... 🎵",
        "text_to_speech": "ממיר לדיבור... 🎤",
        "translate_text": "מתרגם... 🌐",
        "create_poll": "יוצר סקר... 📊",
        "send_location": "שולח מיקום... 📍",
        "retry_last_command": "חוזר על הפעולה... ↩️",
    },
    "en": {
        "create_image": "Creating an image{with_provider}... 🎨",
        "create_video": "Creating a video{with_provider}... 🎬",
        "image_to_video": "Animating the image into a video{with_provider}... 🎞️",
        "edit_image": "Editing the image{with_provider}... ✏️",
        "edit_video": "Editing the video{with_provider}... 🎞️",
        "create_music": "Composing music... 🎵",
        "text_to_speech": "Converting to speech... 🎤",
        "translate_text": "Translating... 🌐",
        "create_poll": "Creating a poll... 📊",
        "send_location": "Sending a location... 📍",
        "retry_last_command": "Repeating the action... ↩️",
    },
}

_DEFAULT_ACK = {"he": "מבצע פעולה... ⚙️", "en": "Working on it... ⚙️"}
_WITH_PROVIDER = {"he": " עם {provider}", "en": " with {provider}"}

_STEP_TOOL_LABELS = {
    "he": {
        "create_poll": "סקר",
        "send_location": "מיקום",
        "create_image": "תמונה",
        "create_video": "וידאו",
        "create_music": "מוזיקה",
    },
    "en": {
        "create_poll": "poll",
        "send_location": "location",
        "create_image": "image",
        "create_video": "video",
        "create_music": "music",
    },
}

_MESSAGES: dict[str, dict[str, str]] = {
    "he": {
        "retry_steps_numbers": "🔄 חוזר על שלבים {steps} מתוך {total} שלבים...",
        "retry_steps_tools": "🔄 חוזר על {tools} ({count} שלבים)...",
        "retry_steps_all": "🔄 חוזר על כל השלבים ({count} שלבים)...",
        "fallback_ack": "🔄 מנסה עם {provider}...",
        "fallback_ack_image": "🎨 מנסה עם {provider}...",
        "fallback_ack_image_edit": "🎨 מנסה לערוך עם {provider}...",
        "fallback_ack_video": "🎬 מנסה עם {provider}...",
        "fallback_ack_simplify": "📝 מנסה לפשט את הבקשה...",
        "fallback_error": "❌ {provider} נכשל: {reason}",
        "fallback_error_image_edit": "❌ {provider} נכשל בעריכה: {reason}",
        "fallback_success": "✅ ניסיתי עם {provider} והצלחתי!",
        "fallback_success_simplified": "✅ הצלחתי עם פרומפט פשוט יותר!",
        "all_failed": "כל הספקים נכשלו:\n{details}",
        "all_failed_image_edit": "כל ספקי העריכה נכשלו:\n{details}",
        "no_failure_details": "לא התקבלה תשובת שגיאה מהספקים.",
        "provider_error": "❌ שגיאה ב-{provider}: {reason}",
        "unknown_reason": "סיבה לא ידועה",
        "hint_image": "💡 אם התכוונת לווידאו ולא לתמונה, נסה לנסח מחדש את הבקשה.",
        "hint_video": "💡 אם התכוונת לתמונה ולא לווידאו, נסה לנסח מחדש את הבקשה.",
        "hint_image_edit": "💡 ודא שהגבת על התמונה שברצונך לערוך.",
        "hint_audio": "💡 נסה טקסט קצר יותר.",
        "no_previous_command": "אין פקודה קודמת לחזור עליה. זו הפעם הראשונה שאתה מבקש משהו.",
        "no_chat_id": "לא נמצא מזהה צ'אט לביצוע החזרה.",
        "no_matching_steps": "לא נמצאו שלבים תואמים. השלבים הזמינים:\n{steps}",
        "restore_plan": "לא הצלחתי לשחזר את התוכנית של הפקודה הרב-שלבית הקודמת.",
        "restore_prompt": "לא הצלחתי לשחזר את הפרומפט של התמונה הקודמת.",
        "restore_video_prompt": "לא הצלחתי לשחזר את הפרומפט של הווידאו הקודם.",
        "restore_edit": "לא הצלחתי לשחזר את הוראות העריכה או את התמונה המקורית.",
        "restore_tts_text": "לא הצלחתי לשחזר את הטקסט להקראה.",
        "restore_music_prompt": "לא הצלחתי לשחזר את הפרומפט של השיר הקודם.",
        "restore_translation": "לא הצלחתי לשחזר את הטקסט לתרגום.",
        "restore_poll_topic": "לא הצלחתי לשחזר את נושא הסקר.",
        "missing_edit_image": "חסר image_url לעריכת תמונה. צריך לספק את ה-URL של התמונה לעריכה.",
        "tool_unavailable": "הכלי {tool} לא זמין",
        "cannot_auto_retry": (
            "הפקודה האחרונה הייתה: {tool}\n\n"
            "לא יכול לחזור עליה אוטומטית, אבל אתה יכול לבקש אותה שוב ישירות."
        ),
        "invalid_retry_args": "בקשת החזרה לא תקינה: {reason}",
        "retry_failed": "❌ שגיאה בחזרה על הפקודה: {reason}",
        "step_failed": "❌ שגיאה בביצוע שלב {step}: {reason}",
        "step_no_tool": "לא הוגדר כלי לשלב",
    },
    "en": {
        "retry_steps_numbers": "🔄 Retrying steps {steps} of {total}...",
        "retry_steps_tools": "🔄 Retrying {tools} ({count} steps)...",
        "retry_steps_all": "🔄 Retrying all steps ({count} steps)...",
        "fallback_ack": "🔄 Trying {provider}...",
        "fallback_ack_image": "🎨 Trying {provider}...",
        "fallback_ack_image_edit": "🎨 Trying to edit with {provider}...",
        "fallback_ack_video": "🎬 Trying {provider}...",
        "fallback_ack_simplify": "📝 Trying a simpler version of the request...",
        "fallback_error": "❌ {provider} failed: {reason}",
        "fallback_error_image_edit": "❌ {provider} failed to edit: {reason}",
        "fallback_success": "✅ Succeeded with {provider}!",
        "fallback_success_simplified": "✅ Succeeded with a simpler prompt!",
        "all_failed": "All providers failed:\n{details}",
        "all_failed_image_edit": "All editing providers failed:\n{details}",
        "no_failure_details": "No error details were returned by the providers.",
        "provider_error": "❌ Error in {provider}: {reason}",
        "unknown_reason": "Unknown error",
        "hint_image": "💡 If you meant a video rather than an image, try rephrasing the request.",
        "hint_video": "💡 If you meant an image rather than a video, try rephrasing the request.",
        "hint_image_edit": "💡 Make sure you replied to the image you want edited.",
        "hint_audio": "💡 Try a shorter text.",
        "no_previous_command": "There is no previous command to retry yet.",
        "no_chat_id": "No chat id available for the retry.",
        "no_matching_steps": "No matching steps. Available steps:\n{steps}",
        "restore_plan": "Could not restore the plan of the previous multi-step command.",
        "restore_prompt": "Could not restore the previous image prompt.",
        "restore_video_prompt": "Could not restore the previous video prompt.",
        "restore_edit": "Could not restore the edit instructions or the original image.",
        "restore_tts_text": "Could not restore the text to speak.",
        "restore_music_prompt": "Could not restore the previous music prompt.",
        "restore_translation": "Could not restore the text to translate.",
        "restore_poll_topic": "Could not restore the poll topic.",
        "missing_edit_image": "image_url is required to edit an image.",
        "tool_unavailable": "The {tool} tool is not available",
        "cannot_auto_retry": (
            "The last command was: {tool}\n\n"
            "I can't repeat it automatically, but you can simply ask for it again."
        ),
        "invalid_retry_args": "Invalid retry request: {reason}",
        "retry_failed": "❌ Error while retrying the command: {reason}",
        "step_failed": "❌ Step {step} failed: {reason}",
        "step_no_tool": "No tool was set for this step",
    },
}


def _lang(language: str | None) -> str:
    return language if language in _MESSAGES else DEFAULT_LANGUAGE


def detect_language(text: str | None) -> str:
    if text and _HEBREW_RE.search(text):
        return "he"
    return "en" if text else DEFAULT_LANGUAGE


def message(key: str, language: str | None = None, **fmt: object) -> str:
    template = _MESSAGES[_lang(language)][key]
    return template.format(**fmt) if fmt else template


def tool_ack(tool: str, provider_name: str | None, language: str | None = None) -> str:
    """Ack for a tool run, naming the provider when one is known."""
    lang = _lang(language)
    template = _TOOL_ACKS[lang].get(tool, _DEFAULT_ACK[lang])
    with_provider = (
        _WITH_PROVIDER[lang].format(provider=provider_name) if provider_name else ""
    )
    if "{with_provider}" in template:
        return template.format(with_provider=with_provider)
    if not provider_name:
        return template
    if "..." in template:
        return template.replace("...", f"{with_provider}...", 1)
    return f"{template} ({provider_name})"


def step_tool_label(tool: str, language: str | None = None) -> str:
    return _STEP_TOOL_LABELS[_lang(language)].get(tool, tool)
