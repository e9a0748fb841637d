"""
Trac XML-RPC Client - Test Suite Package.

Unit tests for the XML-RPC marshaller, transport and client, the
configuration loader, and the Trac issue tracker. No test talks to a
real server; HTTP is replaced by fakes or by patching requests.post.
"""
