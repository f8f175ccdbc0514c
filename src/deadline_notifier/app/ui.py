from __future__ import annotations

from html import escape


def render_homepage(*, app_name: str) -> str:
    title = escape(app_name)
    return f"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{title} Deadlines</title>
  <style>
    :root {{
      --bg: #eef2f3;
      --panel: #ffffff;
      --ink: #1c2a38;
      --muted: #5d6d79;
      --line: #d5dde2;
      --accent: #146c94;
      --err: #a4202c;
    }}
    * {{ box-sizing: border-box; }}
    body {{ margin: 0; font-family: sans-serif; color: var(--ink); background: var(--bg); }}
    .wrap {{ max-width: 720px; margin: 22px auto 40px; padding: 0 16px; display: grid; gap: 16px; }}
    .card {{
      background: var(--panel);
      border: 1px solid var(--line);
      border-radius: 16px;
      padding: 16px;
    }}
    .row {{ display: flex; gap: 10px; flex-wrap: wrap; }}
    input {{ border: 1px solid var(--line); border-radius: 10px; padding: 8px 10px; }}
    button {{ border: none; border-radius: 10px; padding: 8px 12px; cursor: pointer; }}
    .primary {{ background: var(--accent); color: #fff; }}
    .danger {{ background: #ffe8ec; color: var(--err); }}
    ul {{ list-style: none; margin: 0; padding: 0; }}
    li {{
      display: flex;
      justify-content: space-between;
      align-items: center;
      padding: 10px 0;
      border-bottom: 1px solid var(--line);
    }}
    li.done strong {{ text-decoration: line-through; color: var(--muted); }}
    #status {{
      display: none;
      position: fixed;
      bottom: 16px;
      right: 16px;
      color: #fff;
      padding: 8px 12px;
      border-radius: 10px;
    }}
    #reminder-modal {{ display: none; position: fixed; inset: 0; background: rgba(0, 0, 0, 0.45); }}
    #reminder-modal .card {{ max-width: 420px; margin: 20vh auto; }}
  </style>
</head>
<body>
  <main class="wrap">
    <section class="card">
      <h1>{title}</h1>
      <form id="deadline-form" class="row">
        <input id="name" placeholder="Deadline name" required>
        <input id="date" type="date" required>
        <input id="time" type="time" required>
        <button type="submit" class="primary">Add</button>
      </form>
    </section>
    <section class="card">
      <div class="row">
        <h2>Deadlines</h2>
        <button id="delete-past-btn" class="danger">Delete past</button>
      </div>
      <ul id="deadlines"></ul>
    </section>
  </main>
  <div id="status"></div>
  <div id="reminder-modal">
    <div class="card">
      <p id="reminder-message"></p>
      <button id="dismiss-reminder" class="primary">Dismiss</button>
    </div>
  </div>
  <script>
    function showStatus(msg, isError = false) {{
      const el = document.getElementById("status");
      el.textContent = msg;
      el.style.background = isError ? "rgba(64,0,0,0.85)" : "rgba(0,20,0,0.85)";
      el.style.display = "block";
      clearTimeout(showStatus._t);
      showStatus._t = setTimeout(() => {{ el.style.display = "none"; }}, 3500);
    }}

    async function loadAndRender() {{
      try {{
        const res = await fetch("/api/tasks");
        if (!res.ok) throw new Error("Failed to fetch tasks");
        const tasks = await res.json();
        const ul = document.getElementById("deadlines");
        ul.innerHTML = "";
        for (const t of tasks) {{
          const li = document.createElement("li");
          if (t.notified) li.className = "done";
          const info = document.createElement("div");
          const name = document.createElement("strong");
          name.textContent = t.name;
          const when = document.createElement("div");
          when.textContent = new Date(t.datetime).toLocaleString();
          info.append(name, when);
          const del = document.createElement("button");
          del.className = "danger";
          del.textContent = "Delete";
          del.onclick = async () => {{
            const resp = await fetch("/api/tasks/" + encodeURIComponent(t.id), {{ method: "DELETE" }});
            showStatus(resp.ok ? "Deadline deleted" : "Failed to delete task", !resp.ok);
            loadAndRender();
          }};
          li.append(info, del);
          ul.appendChild(li);
        }}
      }} catch (err) {{
        showStatus("Unable to load tasks. Is the server running?", true);
      }}
    }}

    document.getElementById("deadline-form").addEventListener("submit", async (e) => {{
      e.preventDefault();
      const name = document.getElementById("name").value.trim();
      const dt = new Date(`${{document.getElementById("date").value}}T${{document.getElementById("time").value}}`);
      if (!name || isNaN(dt.getTime())) {{ showStatus("Please fill all fields", true); return; }}
      if (dt.getTime() <= Date.now()) {{ showStatus("Please select a future date/time", true); return; }}
      const resp = await fetch("/api/tasks", {{
        method: "POST",
        headers: {{ "Content-Type": "application/json" }},
        body: JSON.stringify({{ name, datetime: dt.toISOString() }}),
      }});
      if (!resp.ok) {{
        const body = await resp.json().catch(() => ({{ error: "unknown" }}));
        showStatus(body.error || "Failed to add deadline", true);
        return;
      }}
      e.target.reset();
      showStatus("Deadline added");
      loadAndRender();
    }});

    document.getElementById("delete-past-btn").addEventListener("click", async () => {{
      const resp = await fetch("/api/tasks/past", {{ method: "DELETE" }});
      showStatus(resp.ok ? "Past deadlines deleted" : "Failed to delete past deadlines", !resp.ok);
      loadAndRender();
    }});

    const modal = document.getElementById("reminder-modal");
    document.getElementById("dismiss-reminder").onclick = () => {{ modal.style.display = "none"; }};

    let source = null;
    let backoffMs = 1000;
    function connectEvents() {{
      if (source) source.close();
      source = new EventSource("/events");
      source.onopen = () => {{ backoffMs = 1000; showStatus("Connected to deadline events"); }};
      source.addEventListener("deadline", (ev) => {{
        const payload = JSON.parse(ev.data);
        document.getElementById("reminder-message").textContent =
          `${{payload.name}} is due now (${{new Date(payload.datetime).toLocaleString()}})`;
        modal.style.display = "block";
        loadAndRender();
      }});
      source.onerror = () => {{
        source.close();
        showStatus(`Event connection lost, retrying in ${{backoffMs / 1000}}s`, true);
        setTimeout(() => {{ backoffMs = Math.min(backoffMs * 2, 30000); connectEvents(); }}, backoffMs);
      }};
    }}

    connectEvents();
    loadAndRender();
  </script>
</body>
</html>
"""
