# Browser client: phone entry, QR display with status polling, and camera
# scanning. Served as a single inline page.


def render_index(poll_interval_ms: int) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1">
        <title>Phone Verification</title>
        <script src="https://cdn.jsdelivr.net/npm/jsqr@1.4.0/dist/jsQR.js"></script>
        <style>
            body {{
                font-family: Arial, sans-serif;
                display: flex;
                justify-content: center;
                min-height: 100vh;
                margin: 0;
                background: #f5f5f5;
            }}
            .container {{
                background: white;
                padding: 2rem;
                margin: 2rem 1rem;
                border-radius: 10px;
                box-shadow: 0 2px 10px rgba(0,0,0,0.1);
                text-align: center;
                max-width: 420px;
                width: 100%;
            }}
            .step {{ display: none; }}
            .step.active {{ display: block; }}
            input {{ font-size: 1.2rem; padding: 0.5rem; width: 90%; }}
            button {{ margin: 0.5rem; padding: 0.6rem 1.2rem; font-size: 1rem; cursor: pointer; }}
            video {{ width: 100%; border-radius: 5px; background: #000; }}
            #qrImage {{ max-width: 100%; }}
            .message {{ margin-top: 1rem; padding: 0.5rem; border-radius: 5px; }}
            .pending {{ color: #666; background: #f0f0f0; }}
            .approved {{ color: #28a745; background: #d4edda; }}
            .error {{ color: #721c24; background: #f8d7da; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1>Phone Verification</h1>

            <div id="step-entry" class="step active">
                <p>Enter your phone number</p>
                <input id="phoneInput" type="tel" placeholder="+123 456 789 012" autocomplete="tel" />
                <div>
                    <button id="generateBtn" onclick="generateQRCode()">Create QR code</button>
                    <button onclick="startScanning()">Scan a code</button>
                </div>
                <div id="entryError"></div>
            </div>

            <div id="step-awaiting" class="step">
                <p>Scan this code with your second device</p>
                <img id="qrImage" alt="QR Code" />
                <p>Phone: <b id="phoneDisplay"></b></p>
                <p>Session: <code id="sessionDisplay"></code></p>
                <p>Valid for <span id="expiryDisplay"></span></p>
                <div class="message pending">Waiting for scan...</div>
                <button onclick="startScanning()">Scan with this device</button>
                <button onclick="resetToEntry()">Start over</button>
            </div>

            <div id="step-scanning" class="step">
                <p>Point the camera at the QR code</p>
                <video id="video" playsinline muted></video>
                <div id="scanResult"></div>
                <button onclick="cancelScanning()">Stop camera</button>
            </div>

            <div id="step-confirmed" class="step">
                <div class="message approved">&#10003; Phone number verified</div>
                <p id="resultPhone"></p>
                <p id="resultMessage"></p>
                <button onclick="resetToEntry()">Verify another number</button>
            </div>
        </div>
        <script>
            const pollInterval = {poll_interval_ms};
            let sessionId = null;
            let videoStream = null;
            let cameraActive = false;
            let pollTimer = null;
            let lastRejected = null;
            let scanGeneration = 0;

            function digitsOnly(text) {{
                return text.replace(/\\D/g, '');
            }}

            function formatPhone(text) {{
                const d = digitsOnly(text);
                if (!d) return '';
                return '+' + d.match(/\\d{{1,3}}/g).join(' ');
            }}

            function showStep(name) {{
                document.querySelectorAll('.step').forEach(step => step.classList.remove('active'));
                document.getElementById('step-' + name).classList.add('active');
            }}

            function showMessage(elementId, message) {{
                const el = document.getElementById(elementId);
                el.className = 'message error';
                el.textContent = '\\u2717 ' + message;
            }}

            async function generateQRCode() {{
                const input = document.getElementById('phoneInput');
                const digits = digitsOnly(input.value);
                if (digits.length < 8 || digits.length > 15) {{
                    showMessage('entryError', 'Enter a valid phone number (8-15 digits)');
                    return;
                }}
                const btn = document.getElementById('generateBtn');
                btn.disabled = true;
                try {{
                    const response = await fetch('/api/generate-qr', {{
                        method: 'POST',
                        headers: {{ 'Content-Type': 'application/json' }},
                        body: JSON.stringify({{ phone: digits }})
                    }});
                    const data = await response.json();
                    if (!data.success) {{
                        showMessage('entryError', data.error || 'Failed to create QR code');
                        return;
                    }}
                    sessionId = data.session_id;
                    document.getElementById('qrImage').src = data.qr_code;
                    document.getElementById('phoneDisplay').textContent = data.phone;
                    document.getElementById('sessionDisplay').textContent = data.session_id;
                    document.getElementById('expiryDisplay').textContent = data.expires_in;
                    document.getElementById('entryError').className = '';
                    document.getElementById('entryError').textContent = '';
                    showStep('awaiting');
                    startPolling();
                }} catch (error) {{
                    console.error('QR generation error:', error);
                    showMessage('entryError', 'Could not reach the server');
                }} finally {{
                    btn.disabled = false;
                }}
            }}

            function stopPolling() {{
                if (pollTimer) {{
                    clearInterval(pollTimer);
                    pollTimer = null;
                }}
            }}

            function startPolling() {{
                stopPolling();
                pollTimer = setInterval(async () => {{
                    if (!sessionId) return;
                    try {{
                        const response = await fetch(`/api/session/${{sessionId}}`);
                        const data = await response.json();
                        if (data.success && data.verified) {{
                            showConfirmed(data.phone, false);
                        }}
                    }} catch (error) {{
                        console.error('Poll error:', error);
                    }}
                }}, pollInterval);
            }}

            async function startScanning() {{
                showStep('scanning');
                document.getElementById('scanResult').textContent = '';
                lastRejected = null;
                stopCamera();
                const attempt = scanGeneration;
                try {{
                    const stream = await navigator.mediaDevices.getUserMedia({{
                        video: {{ facingMode: 'environment', width: {{ ideal: 1280 }}, height: {{ ideal: 720 }} }}
                    }});
                    // The user may have left Scanning while the camera was opening
                    if (attempt !== scanGeneration) {{
                        stream.getTracks().forEach(track => track.stop());
                        return;
                    }}
                    videoStream = stream;
                    const video = document.getElementById('video');
                    video.srcObject = videoStream;
                    cameraActive = true;
                    await video.play();
                    detectFrame();
                }} catch (err) {{
                    if (attempt !== scanGeneration) return;
                    stopCamera();
                    showMessage('scanResult', 'Camera unavailable: ' + err.message);
                }}
            }}

            function detectFrame() {{
                if (!cameraActive) return;
                const video = document.getElementById('video');
                if (video.readyState === video.HAVE_ENOUGH_DATA) {{
                    const canvas = document.createElement('canvas');
                    canvas.width = video.videoWidth;
                    canvas.height = video.videoHeight;
                    const ctx = canvas.getContext('2d');
                    ctx.drawImage(video, 0, 0, canvas.width, canvas.height);
                    const image = ctx.getImageData(0, 0, canvas.width, canvas.height);
                    const code = jsQR(image.data, image.width, image.height);
                    if (code && code.data !== lastRejected) {{
                        handleDecoded(code.data);
                        return;
                    }}
                }}
                requestAnimationFrame(detectFrame);
            }}

            async function handleDecoded(text) {{
                let payload = null;
                try {{
                    payload = JSON.parse(text);
                }} catch (e) {{
                    payload = null;
                }}
                if (!payload || payload.type !== 'phone_verification' || !payload.session_id || !payload.phone) {{
                    lastRejected = text;
                    requestAnimationFrame(detectFrame);
                    return;
                }}
                try {{
                    const response = await fetch('/api/verify-scan', {{
                        method: 'POST',
                        headers: {{ 'Content-Type': 'application/json' }},
                        body: JSON.stringify({{ session_id: payload.session_id, scanned_phone: payload.phone }})
                    }});
                    const result = await response.json();
                    if (result.success) {{
                        showConfirmed(result.phone, true);
                        return;
                    }}
                    lastRejected = text;
                    showMessage('scanResult', result.error || 'Verification failed');
                }} catch (error) {{
                    showMessage('scanResult', 'Could not reach the server');
                }}
                requestAnimationFrame(detectFrame);
            }}

            function stopCamera() {{
                scanGeneration += 1;
                if (videoStream) {{
                    videoStream.getTracks().forEach(track => track.stop());
                    videoStream = null;
                }}
                cameraActive = false;
            }}

            function cancelScanning() {{
                stopCamera();
                showStep(sessionId ? 'awaiting' : 'entry');
            }}

            function resetToEntry() {{
                stopCamera();
                stopPolling();
                sessionId = null;
                document.getElementById('phoneInput').value = '';
                showStep('entry');
            }}

            function showConfirmed(phone, viaScan) {{
                stopCamera();
                stopPolling();
                document.getElementById('resultPhone').textContent = 'Phone: ' + phone;
                document.getElementById('resultMessage').textContent = viaScan
                    ? 'You scanned the QR code and confirmed the phone number.'
                    : 'Your phone number was confirmed by scanning the QR code.';
                showStep('confirmed');
            }}

            const phoneInput = document.getElementById('phoneInput');
            phoneInput.addEventListener('input', (e) => {{
                e.target.value = formatPhone(e.target.value);
            }});
            phoneInput.addEventListener('keypress', (e) => {{
                if (e.key === 'Enter') generateQRCode();
            }});
            window.addEventListener('pagehide', stopCamera);
        </script>
    </body>
    </html>
    """
