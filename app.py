"""
Flask веб-приложение для декодирования GIF файлов и извлечения кадров
"""

import base64
import io
import json

from flask import Flask, Response, jsonify, request, send_file

from gif_animation import GIFAnimation, fingerprint
from gif_errors import GIFError, ImageTooLarge, NoFramesDecoded
from gif_parser import GIFParser
from png_writer import PNGWriter

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB максимум
app.config['DEFAULT_DELAY_MS'] = 100
app.config['STRICT_LZW'] = False
app.config['MAX_PIXELS'] = 4096 * 4096  # экран и каждое изображение
app.config.from_prefixed_env('GIF')


class UploadError(Exception):
    """Ошибка в параметрах запроса"""


def read_upload() -> bytes:
    """Читает загруженный GIF файл из запроса"""
    if 'file' not in request.files:
        raise UploadError('Файл не загружен')

    file = request.files['file']
    if file.filename == '':
        raise UploadError('Файл не выбран')

    return file.read()


def read_frame_index() -> int:
    frame_index = request.form.get('frame_index', type=int)
    if frame_index is None:
        raise UploadError('Не указан номер фрейма')
    return frame_index


def make_parser(data: bytes) -> GIFParser:
    return GIFParser(
        data,
        default_delay_ms=app.config['DEFAULT_DELAY_MS'],
        tolerate_out_of_sequence=not app.config['STRICT_LZW'],
        max_pixels=app.config['MAX_PIXELS']
    )


def decode_upload(data: bytes) -> GIFAnimation:
    return GIFAnimation.from_parser(make_parser(data))


def frame_data_url(frame) -> str:
    """Кадр в виде PNG data URL"""
    image_base64 = base64.b64encode(PNGWriter.from_frame(frame).to_bytes()).decode('ascii')
    return f'data:image/png;base64,{image_base64}'


def gif_error_payload(error: GIFError) -> dict:
    return {
        'error': f'Ошибка разбора GIF: {error}',
        'kind': error.kind,
        'offset': error.offset,
        'block_index': error.block_index
    }


@app.errorhandler(UploadError)
def handle_upload_error(error):
    return jsonify({'error': str(error)}), 400


@app.errorhandler(NoFramesDecoded)
def handle_no_frames(error):
    return jsonify(gif_error_payload(error)), 422


@app.errorhandler(ImageTooLarge)
def handle_image_too_large(error):
    app.logger.info("Слишком большой GIF: %s", error)
    return jsonify(gif_error_payload(error)), 413


@app.errorhandler(GIFError)
def handle_gif_error(error):
    app.logger.info("Некорректный GIF: %s", error)
    return jsonify(gif_error_payload(error)), 400


@app.route('/api/info', methods=['POST'])
def get_gif_info():
    """Информация о GIF: размеры, число кадров, длительности"""
    animation = decode_upload(read_upload())

    return jsonify({
        'width': animation.width,
        'height': animation.height,
        'frame_count': animation.frame_count,
        'durations': animation.durations,
        'total_duration': animation.total_duration,
        'loop_count': animation.loop_count,
        'comments': animation.comments,
        'fingerprint': animation.fingerprint()
    })


@app.route('/api/preload', methods=['POST'])
def preload_all_frames():
    """Все кадры в base64 вместе с длительностями"""
    animation = decode_upload(read_upload())

    return jsonify({
        'frames': [frame_data_url(frame) for frame in animation],
        'durations': animation.durations,
        'frame_count': animation.frame_count
    })


@app.route('/api/preload-stream', methods=['POST'])
def preload_all_frames_stream():
    """Кадры по мере декодирования через Server-Sent Events"""
    # Файл читается до начала генерации: после выхода из обработчика request уже закрыт
    file_data = read_upload()

    def event(payload: dict) -> str:
        return f"data: {json.dumps(payload)}\n\n"

    def generate():
        parser = make_parser(file_data)
        frames = []
        try:
            yield event({'type': 'start'})

            for frame in parser.iter_frames():
                frames.append(frame)
                yield event({
                    'type': 'frame',
                    'index': frame.index,
                    'duration': frame.duration,
                    'image': frame_data_url(frame)
                })

            if not frames:
                yield event({'type': 'error', 'error': 'В GIF нет ни одного изображения'})
                return

            yield event({
                'type': 'complete',
                'frame_count': len(frames),
                'width': parser.width,
                'height': parser.height,
                'total_duration': parser.total_duration,
                'fingerprint': fingerprint(frames)
            })
        except GIFError as e:
            app.logger.info("Ошибка разбора GIF после %d кадров: %s", len(frames), e)
            yield event(dict(gif_error_payload(e), type='error'))

    response = Response(generate(), mimetype='text/event-stream')
    response.headers['Cache-Control'] = 'no-cache'
    response.headers['X-Accel-Buffering'] = 'no'
    return response


def get_requested_frame():
    data = read_upload()
    frame_index = read_frame_index()
    animation = decode_upload(data)

    if frame_index < 0 or frame_index >= animation.frame_count:
        raise UploadError(f'Неверный номер фрейма. Доступно: 0-{animation.frame_count - 1}')

    return frame_index, animation.image(frame_index)


@app.route('/api/extract', methods=['POST'])
def extract_frame():
    """Извлекает указанный фрейм из GIF в виде PNG"""
    frame_index, frame = get_requested_frame()

    return send_file(
        io.BytesIO(PNGWriter.from_frame(frame).to_bytes()),
        mimetype='image/png',
        as_attachment=True,
        download_name=f'frame_{frame_index}.png'
    )


@app.route('/api/preview', methods=['POST'])
def preview_frame():
    """Возвращает превью фрейма в base64"""
    frame_index, frame = get_requested_frame()

    return jsonify({
        'image': frame_data_url(frame),
        'frame_index': frame_index,
        'duration': frame.duration
    })


@app.errorhandler(500)
def handle_internal_error(error):
    # Само исключение Flask уже записал в app.logger
    return jsonify({'error': 'Ошибка обработки'}), 500


if __name__ == '__main__':
    # Для Docker используем 0.0.0.0, чтобы принимать подключения извне
    app.run(debug=True, host='0.0.0.0', port=5000)
