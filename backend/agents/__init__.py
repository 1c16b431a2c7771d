"""
Agents Package

LLM prompts and the provider-agnostic calling layer.

- prompts/llm: call_llm (single completion) and open_chat_stream (streamed deltas)
- prompts/report_analysis: report -> insights prompt
- prompts/data_chat: analyst assistant prompt and report context
"""
