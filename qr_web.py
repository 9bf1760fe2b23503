#!/usr/bin/env python3
"""
QR Code Decoder Web App
Run: qr-web
Visit: http://<your-ip>:8080 on your phone
"""

import logging

import cv2
import numpy as np
from flask import Flask, request, jsonify, render_template_string

import qr_config
from qr_binarize import BinaryBitmap
from qr_common import ChecksumError, DecodeHints, FormatError, NotFoundError
from qr_reader import QRCodeReader

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = qr_config.MAX_UPLOAD_BYTES

ERROR_KINDS = {NotFoundError: 'not_found', FormatError: 'format', ChecksumError: 'checksum'}

HTML = '''
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>QR Decoder</title>
    <style>
        body { font-family: -apple-system, sans-serif; max-width: 500px; margin: 0 auto; padding: 20px; }
        #result { margin-top: 20px; word-break: break-all; }
        .error { color: #c62828; }
    </style>
</head>
<body>
    <h1>QR Code Decoder</h1>
    <form id="form">
        <input type="file" name="image" accept="image/*" capture="environment">
        <label><input type="checkbox" name="pure" value="1"> Pure barcode</label>
        <button type="submit">Decode</button>
    </form>
    <div id="result"></div>
    <script>
        document.getElementById('form').onsubmit = (e) => {
            e.preventDefault();
            const out = document.getElementById('result');
            out.textContent = 'Decoding...';
            fetch('/decode', { method: 'POST', body: new FormData(e.target) })
                .then(r => r.json())
                .then(data => {
                    out.className = data.success ? '' : 'error';
                    out.textContent = data.success
                        ? data.result.text + ' (EC ' + data.result.ec_level + ')'
                        : 'Error: ' + data.error;
                });
        };
    </script>
</body>
</html>
'''


@app.route('/')
def index():
    return render_template_string(HTML)


@app.route('/decode', methods=['POST'])
def decode():
    if 'image' not in request.files:
        return jsonify({'success': False, 'error': 'No image uploaded'}), 400

    file = request.files['image']
    if file.filename == '':
        return jsonify({'success': False, 'error': 'No file selected'}), 400

    image = cv2.imdecode(np.frombuffer(file.read(), dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        return jsonify({'success': False, 'error': 'Cannot read image'}), 400

    hints = DecodeHints(pure_barcode=request.form.get('pure') in ('1', 'true', 'on'),
                        try_harder=request.form.get('try_harder') in ('1', 'true', 'on'))
    try:
        result = QRCodeReader().decode(BinaryBitmap(image), hints)
    except (NotFoundError, FormatError, ChecksumError) as e:
        logger.info("[DECODE] %s: %s", type(e).__name__, e)
        return jsonify({'success': False, 'error': str(e), 'kind': ERROR_KINDS[type(e)]})

    logger.info("[DECODE] %s", result.text[:60])
    return jsonify({'success': True, 'result': result.to_dict()})


def main():
    logging.basicConfig(level=qr_config.LOG_LEVEL, format='%(levelname)s %(name)s: %(message)s')
    print("=" * 50)
    print("QR Code Decoder Web App")
    print("=" * 50)
    print(f"\nVisit: http://localhost:{qr_config.WEB_PORT}")
    print("\nPress Ctrl+C to stop\n")
    app.run(host=qr_config.WEB_HOST, port=qr_config.WEB_PORT, debug=False)


if __name__ == '__main__':
    main()
